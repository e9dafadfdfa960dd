"""duckspine command line interface (``duckspine ...``)."""
