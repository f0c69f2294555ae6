from setuptools import setup, find_packages


setup(
    name="textar",
    version="0.1",
    packages=find_packages(include=["textar", "textar.*"]),
    description="A tar-like utility for creating, listing and extracting txtar text archives.",
    python_requires=">=3.8",
    install_requires=[],
    entry_points={
        "console_scripts": [
            "textar=textar.cli:main",
        ]
    },
)
