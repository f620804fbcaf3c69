import re

from setuptools import find_packages, setup


def load_version(filename):
    with open(filename) as fd:
        return re.search(r'^VERSION = "(.*)"', fd.read(), re.M).group(1)


def load_text(filename):
    with open(filename) as fd:
        return fd.read()


def load_requirements(filename):
    return load_text(filename).splitlines()


requirements = load_requirements("requirements.txt")
test_requirements = load_requirements("requirements-dev.txt")

setup(
    name="sftpipe",
    description="Pipelined sftp transfer library",
    long_description=load_text("README.md"),
    long_description_content_type="text/markdown",
    version=load_version("sftpipe/version.py"),
    packages=find_packages(exclude=("tests", "tests*")),
    entry_points={"console_scripts": ["sftpipe = sftpipe.cli:safe_cli"]},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
    ],
    tests_require=test_requirements,
    extras_require={"test": test_requirements},
    install_requires=requirements,
    python_requires=">=3.8",
)
