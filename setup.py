from setuptools import find_packages, setup

setup(
    name="pynetmeter",
    version="1.0.0",
    platforms=["any"],
    license="MIT",
    packages=find_packages(include=["pynetmeter", "pynetmeter.*"]),
    install_requires=[
        "click>=8.1.7",
        "colorama>=0.4.6",
        "pydantic>=2.11.4",
        "tabulate>=0.9.0",
        "aiohttp>=3.9",
    ],
    tests_require=[
        "pytest",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "netmeter = pynetmeter.main:cli",
        ],
    },
    python_requires=">=3.11",
)
