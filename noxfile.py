import os
import tempfile
from pathlib import Path

import nox

PYTHON_VERSIONS = ["3.9", "3.10", "3.11", "3.12", "3.13"]


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    pytest_args = []
    for arg in session.posargs:
        if arg.startswith('numprocesses'):
            n_processes = arg.split('=')[1]
            session.log(f"Running tests with n={n_processes} jobs.")
            pytest_args.append(f'--numprocesses={n_processes}')
    session.install("-e", ".[tests]", '-v', silent=False)

    if 'cov' in session.posargs:
        session.log("Running with coverage")
        xml_results_dest = Path(os.getenv('SYSTEM_DEFAULTWORKINGDIRECTORY', tempfile.gettempdir()))
        assert xml_results_dest.exists() and xml_results_dest.is_dir(), 'no dest dir available'
        junit_xml = str((xml_results_dest / 'junit.xml').absolute())
        cov_xml = str((xml_results_dest / 'coverage.xml').absolute())
        pytest_args += ['--cov=erchmm', f"--cov-report=xml:{cov_xml}", f"--junit-xml={junit_xml}"]
    else:
        session.log("Running without coverage")

    test_dirs = [str((Path.cwd() / 'tests').absolute()),  # python tests
                 str((Path.cwd() / 'erchmm').absolute())]  # doctests
    session.run("python", "-m", "pytest", '-vv', '--doctest-modules', '--durations=20', *pytest_args, *test_dirs)


@nox.session(reuse_venv=True)
def build(session: nox.Session) -> None:
    session.install("build")
    session.log("Building normal files")
    session.run("python", "-m", "build")
