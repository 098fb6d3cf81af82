# type: ignore
from invoke import task

DEMO_NETWORK = "networks/home.toml"


@task
def venv(ctx):
    """Create the development environment with uv, including dev extras."""
    print("Initializing development environment with uv...")
    ctx.run("uv sync --extra dev")
    print("Development environment initialization complete!")


@task
def clean(ctx):
    """
    Remove all files and directories that are not under version control.
    Use caution as this operation cannot be undone and might remove untracked files.
    """

    ctx.run("git clean -nfdx")

    response = (
        input("Are you sure you want to remove all untracked files? (y/n) [n]: ")
        .strip()
        .lower()
    )
    if response == "y":
        ctx.run("git clean -fdx")


@task
def lint(ctx):
    """
    Static analysis and formatting checks for sources and tests.
    """
    ctx.run("ruff check src tests", pty=True)
    ctx.run("ruff format --check src tests", pty=True)
    ctx.run("mypy src", pty=True)


@task
def test(ctx):
    """
    Run tests with coverage information.
    """
    ctx.run("pytest --cov=lanfuse --cov-report=term-missing", pty=True)


@task
def demo(ctx, network=DEMO_NETWORK):
    """Run a quick, full and deep scan against the simulated demo network."""
    for workflow in ("quick", "full", "deep"):
        ctx.run(f"lanfuse scan {workflow} --network {network}", pty=True)
    ctx.run("lanfuse devices", pty=True)


@task
def build_package(ctx):
    """
    Build package using uv.
    """

    ctx.run("rm -rf dist")
    ctx.run("uv build")
