from setuptools import find_packages, setup

if __name__ == "__main__":
    setup(
        name="rinkshift",
        version="0.1.0",
        description="Shift, rink-time and plus/minus reconstruction from hockey game event logs",
        long_description=open("README.rst").read(),
        packages=find_packages(include=["rinkshift", "rinkshift.*"]),
        python_requires=">=3.9",
        zip_safe=False,
        install_requires=[
            "django>=4.2",
            "pandas",
            "pyyaml",
            "rich",
        ],
        extras_require={
            "test": ["pytest"],
        },
        entry_points={
            "console_scripts": [
                "rinkshift-stats=rinkshift.cli.game_stats:main",
                "rinkshift-rebuild-goals=rinkshift.cli.rebuild_goals:main",
            ],
        },
    )
