from setuptools import setup, find_packages

setup(
    name="lanshare",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pyyaml>=6.0.2",
        "python-dotenv>=1.0.1",
    ],
    extras_require={
        "gui": [
            "PyQt5>=5.15.11",
            "qasync>=0.27.1",
        ],
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "lanshare=lanshare.__main__:main",
        ],
    },
    description="Share files with peers on the local network over a simple TCP protocol",
    keywords="p2p, file sharing, lan, subnet scan",
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: End Users/Desktop",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
)
