from setuptools import setup, find_packages

setup(
    name="odxanalyzer",
    version="1.0.0",
    description="Orchestration model builder and migration gap analyzer for BizTalk .odx files",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "click>=8.1.7",
        "lxml>=4.9.3",
        "pyyaml>=6.0",
        "tqdm>=4.66.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "odxanalyzer=odxanalyzer.cli:main",
        ],
    },
    python_requires=">=3.8",
)
