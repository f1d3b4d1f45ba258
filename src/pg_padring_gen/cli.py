"""Rich-Click CLI for pg_padring_gen."""

from __future__ import annotations

import logging
from pathlib import Path

import rich_click as click

from pg_padring_gen.errors import PadRingError

click.rich_click.USE_RICH_MARKUP = True


@click.command()
@click.argument("inventory_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    show_default="None",
    help="YAML configuration. FP_PDN_*, DIE_AREA and CORE_AREA environment variables override it.",
)
@click.option(
    "--output-dir",
    type=click.Path(path_type=Path),
    default=Path("output"),
    show_default=True,
    help="Output directory for generated files.",
)
@click.option("--report/--no-report", default=True, show_default=True, help="Generate and print an ASCII summary report.")
@click.option("--layout/--no-layout", default=True, show_default=True, help="Write the YAML layout artifact.")
@click.option("--viz/--no-viz", default=True, show_default=True, help="Generate 2D HTML floorplan.")
@click.option("--open-browser", is_flag=True, default=False, show_default="False", help="Auto-open HTML after generation.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log every placed pad and applied rule.")
def generate(
    inventory_file: Path,
    config_file: Path | None,
    output_dir: Path,
    report: bool,
    layout: bool,
    viz: bool,
    open_browser: bool,
    verbose: bool,
) -> None:
    """Synthesize power grid and pad ring for the instances in INVENTORY_FILE."""
    from pg_padring_gen.config import load_config
    from pg_padring_gen.flow import run_flow
    from pg_padring_gen.inventory import load_inventory

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        click.echo(f"Loading config: {config_file or '(defaults)'}")
        config = load_config(config_file)
        click.echo(f"Loading inventory: {inventory_file}")
        inventory = load_inventory(inventory_file)

        click.echo("Building power grid and pad ring...")
        db = run_flow(config, inventory)
    except PadRingError as exc:
        logging.getLogger(__name__).error("%s: %s", type(exc).__name__, exc)
        raise click.ClickException(str(exc)) from exc

    output_dir.mkdir(parents=True, exist_ok=True)

    if report:
        from pg_padring_gen.reporter import generate_report

        summary_text = generate_report(db, config)
        click.echo(summary_text)
        summary_path = output_dir / "padring_summary.txt"
        summary_path.write_text(summary_text + "\n")
        click.echo(f"Writing summary report: {summary_path}")

    if layout:
        from pg_padring_gen.layout_writer import write_layout

        layout_path = output_dir / f"{db.design_name}_layout.yaml"
        click.echo(f"Writing layout: {layout_path}")
        write_layout(db, layout_path)

    if viz:
        from pg_padring_gen.visualize import render_floorplan

        viz_path = output_dir / "floorplan.html"
        click.echo(f"Rendering floorplan: {viz_path}")
        render_floorplan(db, config, viz_path, open_browser=open_browser)

    click.echo("Done!")


# Keep the public CLI symbol name unchanged for __main__/entry points.
app = generate
