# setup.py
from setuptools import setup, find_packages

setup(
    name="schoolcal",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "python-dateutil",
        "reportlab",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "schoolcal=schoolcal.main:main",
        ],
    },
)
