"""wireoverlay — draws marker-to-marker wiring paths over photographs."""

__version__ = "0.1.0"
