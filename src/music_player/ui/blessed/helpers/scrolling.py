"""Pure helper functions for scrolling and selection in list-based UI components."""


def calculate_scroll_offset(
    selected: int,
    current_scroll: int,
    visible_items: int,
    total_items: int,
) -> int:
    """Calculate scroll offset to keep selected item visible in viewport.

    Args:
        selected: Index of the currently selected item (0-based)
        current_scroll: Current scroll offset (0-based)
        visible_items: Number of items visible in the viewport
        total_items: Total number of items in the list

    Returns:
        New scroll offset to keep selected item visible

    Examples:
        >>> calculate_scroll_offset(selected=15, current_scroll=0, visible_items=10, total_items=20)
        6
        >>> calculate_scroll_offset(selected=2, current_scroll=10, visible_items=10, total_items=20)
        2
    """
    if visible_items <= 0 or total_items <= visible_items:
        return 0

    if selected >= current_scroll + visible_items:
        scroll = selected - visible_items + 1
    elif selected < current_scroll:
        scroll = selected
    else:
        scroll = current_scroll

    # Never leave blank rows below the last item
    return max(0, min(scroll, total_items - visible_items))


def move_selection(
    current: int,
    delta: int,
    total_items: int,
    wrap: bool = False,
) -> int:
    """Move selection by delta, wrapping or clamping at the ends.

    Examples:
        >>> move_selection(current=9, delta=1, total_items=10, wrap=True)
        0
        >>> move_selection(current=9, delta=1, total_items=10)
        9
    """
    if total_items == 0:
        return 0

    if wrap:
        return (current + delta) % total_items
    return max(0, min(current + delta, total_items - 1))


def clamp_selection(selection: int, total_items: int) -> int:
    """Clamp selection to valid range [0, total_items - 1]."""
    if total_items == 0:
        return 0
    return max(0, min(selection, total_items - 1))
