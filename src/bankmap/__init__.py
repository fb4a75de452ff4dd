"""Bank statement import: column detection, mapping templates and a review queue."""

__version__ = "0.1.0"


def __getattr__(name):
    # cli.main imports every command module, so only load it when asked for
    if name == "main":
        from bankmap.cli.main import main

        return main
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
