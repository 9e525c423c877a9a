from setuptools import find_packages, setup

base_requires = [
    "PyYAML>=6.0",
    "requests>=2.32",
]
test_requires = [
    "pytest>=8.0",
]

setup(
    name="adaptive-ids",
    version="0.1.0",
    description="Online anomaly scoring and reinforcement-learned response for connection events",
    packages=find_packages(exclude=("tests", "tests.*", "docs")),
    include_package_data=False,
    python_requires=">=3.10",
    install_requires=base_requires,
    extras_require={"test": test_requires},
    entry_points={
        "console_scripts": [
            "adaptive-ids=adaptive_ids.cli.app:main",
        ]
    },
)
