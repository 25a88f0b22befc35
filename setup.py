from setuptools import setup, find_packages

setup(
    name="repo_lens",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "requests",
        "pyyaml",
        "tqdm>=4.60",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "repo-lens=repo_lens.cli:main",
        ],
    },
    author="Uday Kanth",
    description="Extracts, indexes and queries knowledge from remote code repositories.",
)
