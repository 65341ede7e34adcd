"""Structured error hierarchy for WGD-Load."""


class WgdLoadError(Exception):
    """Base for all WGD-Load errors."""

    pass


class ConsistencyError(WgdLoadError):
    """A primary record and its linked shadow record carry different tags."""

    def __init__(self, primary_index: int, primary_tag: float, shadow_index: int, shadow_tag: float):
        self.primary_index = primary_index
        self.primary_tag = primary_tag
        self.shadow_index = shadow_index
        self.shadow_tag = shadow_tag
        super().__init__(
            f"Pairing tag mismatch: primary[{primary_index}] tag={primary_tag!r} "
            f"!= shadow[{shadow_index}] tag={shadow_tag!r}"
        )


class BijectionError(WgdLoadError):
    """New primary offspring could not be matched one-to-one to new shadow offspring."""

    def __init__(self, unmatched_tags, reason: str = "no shadow record carries tag"):
        self.unmatched_tags = list(unmatched_tags)
        self.reason = reason
        shown = ", ".join(repr(t) for t in self.unmatched_tags[:5])
        more = "" if len(self.unmatched_tags) <= 5 else f" (+{len(self.unmatched_tags) - 5} more)"
        super().__init__(f"Link resolution failed, {reason}: {shown}{more}")
