from timeflux.utils.utils import configure_logging


def configure_cli_display() -> None:
    """
    Configure logging and dataframe display defaults for the CLI.

    Imported lazily from the `run` and `cluster` commands so that `init`
    stays fast.
    """
    import polars as pl

    configure_logging()

    pl.Config.set_tbl_rows(20)
    pl.Config.set_tbl_cols(20)
    pl.Config.set_tbl_width_chars(160)
