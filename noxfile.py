import nox

PYTHONS = ["3.11", "3.12", "3.13"]


@nox.session(python=PYTHONS)
def tests(session):
    session.install("-e", ".[dev]")
    session.run("pytest", "tests", *session.posargs)


@nox.session(python=PYTHONS[-1])
def example(session):
    """Run the aria2 example against a local aria2c --enable-rpc."""
    session.install(".")
    session.run("python", "examples/aria2/client.py", *session.posargs)
