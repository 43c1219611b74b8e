from pathlib import Path


def format_order_listing(tables: list[str]) -> str:
    """One table name per line, newline-terminated; empty for no tables."""
    if not tables:
        return ""
    return "\n".join(tables) + "\n"


def write_order_listing(path: Path | str, tables: list[str]) -> Path:
    """
    Write an insertion or deletion order listing.

    Args:
        path: Target file; parent directories are created
        tables: Table names in order

    Returns:
        The path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_order_listing(tables), encoding="utf-8")
    return path
