from setuptools import setup, find_packages

# Read dependencies from requirements.txt
with open("requirements.txt") as f:
    install_requires = [line.strip() for line in f if line.strip() and not line.startswith("#")]

# Read version from version.txt
with open("version.txt") as f:
    version = f.read().strip()

setup(
    name="compatmatrix",
    version=version,
    packages=find_packages(include=["compatmatrix", "compatmatrix.*"]),
    install_requires=install_requires,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "compatmatrix=compatmatrix.main:main",
        ],
    },
    include_package_data=True,
    package_data={
        "compatmatrix": [
            "input/config_file/*.yaml",
            "input/config_file/*.json",
            "input/templates/*.template",
        ],
    },
    description="Compatibility test-matrix runner for runtime and tool version combinations",
    author="Advanced Micro Devices, Inc.",
    author_email="support@amd.com",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Testing",
        "Topic :: Software Development :: Build Tools",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX",
    ],
    python_requires=">=3.9",
)
