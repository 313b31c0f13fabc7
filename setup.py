#!/usr/bin/env python3

from setuptools import find_packages, setup

version = {}
with open("./oss_audit/_version.py") as f:
    exec(f.read(), version)

with open("./README.md") as f:
    long_description = f.read()

setup(
    name="oss-audit",
    version=version["__version__"],
    license="Apache-2.0",
    description="A tool for auditing Gemfile.lock dependencies against OSS Index",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["test", "test.*"]),
    entry_points={
        "console_scripts": [
            "oss-audit = oss_audit._cli:audit",
        ]
    },
    platforms="any",
    python_requires=">=3.8",
    install_requires=[
        "requests>=2.31.0",
        "CacheControl[filecache]>=0.13.0",
        "platformdirs>=4.0.0",
        "rich>=12.4",
    ],
    extras_require={
        "dev": [
            "flake8",
            "black",
            "isort",
            "pytest",
            "pytest-cov",
            "pretend",
            "coverage[toml]",
            "mypy",
            "types-requests",
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Intended Audience :: Developers",
        "Topic :: Security",
    ],
)
