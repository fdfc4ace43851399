def format_size(size: float) -> str:
    """Format size in bytes to human readable"""
    if size == 0:
        return "0B"
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size < 1024.0:
            return f"{size:.1f}{unit}"
        size /= 1024.0
    return f"{size:.1f}TB"

def format_time(seconds: float) -> str:
    """Format seconds to human readable time"""
    if seconds < 60:
        return f"{int(seconds):02d}s"
    elif seconds < 3600:
        return f"{int(seconds / 60):02d}m {int(seconds % 60):02d}s"
    else:
        return f"{int(seconds / 3600)}h {int((seconds % 3600) / 60):02d}m"
