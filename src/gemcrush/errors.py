class BoardInvariantError(ValueError):
    """Raised when board data cannot describe a consistent grid.

    Typical causes are snapshot dimensions that disagree with the cell
    payload, a tile whose declared position differs from its slot, or a
    tile type outside the configured range.
    """
