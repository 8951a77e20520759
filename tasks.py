# type: ignore
import os

from invoke import task

SOURCES = "src tests tasks.py"


@task
def venv(ctx):
    """Create .venv with the package and its test/dev extras."""
    ctx.run("uv sync --all-extras")


@task
def clean(ctx):
    """Remove untracked files after listing them and asking."""
    ctx.run("git clean -nfdx")
    answer = input("Remove the files listed above? (y/n) [n]: ").strip().lower()
    if answer == "y":
        ctx.run("git clean -fdx")


@task
def fmt(ctx):
    """Apply ruff formatting and safe fixes."""
    ctx.run(f"ruff format {SOURCES}", pty=True)
    ctx.run(f"ruff check --fix {SOURCES}", pty=True)


@task
def lint(ctx):
    """Check style and types without changing files."""
    ctx.run(f"ruff check {SOURCES}", pty=True)
    ctx.run(f"ruff format --check {SOURCES}", pty=True)
    ctx.run("mypy src", pty=True)


@task(help={"k": "only run tests matching this expression"})
def test(ctx, k=None):
    """Run the test suite with a coverage report."""
    selector = f" -k '{k}'" if k else ""
    ctx.run(
        f"pytest --cov=wakestream --cov-report=term-missing{selector}", pty=True
    )


@task(pre=[lint, test])
def build_package(ctx):
    """Build sdist and wheel into dist/."""
    ctx.run("rm -rf dist")
    ctx.run("uv build")


@task(pre=[build_package])
def release(ctx):
    """Publish dist/ to PyPI; needs PYPI_TOKEN."""
    token = os.getenv("PYPI_TOKEN")
    if not token:
        raise ValueError("PYPI_TOKEN environment variable is not set")
    ctx.run(f"uv publish --token {token}")
