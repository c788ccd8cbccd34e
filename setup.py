from setuptools import setup, find_packages


setup(
    name="psoarchive",
    version="0.1",
    packages=find_packages(include=["psoarchive", "psoarchive.*"]),
    description="Readers and writers for PSO archive formats (AFS, GSL) and PRSD encrypted payloads.",
    author="psoarchive contributors",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "psoarchive=psoarchive.cli:main",
        ]
    },
)
