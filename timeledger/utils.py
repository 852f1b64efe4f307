def format_duration(seconds: int) -> str:
    """
    Format a number of seconds as H:MM:SS.

    Hours are not padded and not wrapped at 24, so 90061 seconds is "25:01:01".
    """
    seconds = max(int(seconds), 0)
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"
