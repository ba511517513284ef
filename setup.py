from setuptools import setup, find_packages

setup(
    name="llm_file_editor",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests",
        "pyyaml",
        "textual",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "llmedit=llm_file_editor.cli:main",
        ],
    },
    description="Ask an LLM to modify a source file, review the diff, and apply it atomically.",
)
