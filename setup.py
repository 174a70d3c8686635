from setuptools import find_packages, setup

setup(
    name="worldsnap",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "dulwich>=0.24",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.10",
    description="worldsnap — incremental, versioned game world backups on git",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: System :: Archiving :: Backup",
        "Topic :: Software Development :: Version Control :: Git",
        "Programming Language :: Python :: 3.12",
    ],
)
