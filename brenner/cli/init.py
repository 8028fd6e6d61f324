"""Set up the brenner home and research directories."""

import typer

from brenner.lib import config, paths

from .errors import error_feedback
from .output import echo_if_output, output_json


@error_feedback
def init(ctx: typer.Context):
    """Write the default config (if missing) and create the .research/ tree."""
    created = config.init_config()
    base = config.data_dir()
    directories = [paths.anomalies_dir(base), paths.artifacts_dir(base)]
    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)

    if output_json(
        {"config": str(config.config_file()), "created": created, "directories": [str(d) for d in directories]},
        ctx,
    ):
        return
    if created:
        echo_if_output(f"✓ Wrote {config.config_file()}", ctx)
    else:
        echo_if_output(f"Config already at {config.config_file()}", ctx)
    for directory in directories:
        echo_if_output(f"✓ {directory}", ctx)
