import os
from setuptools import setup, find_packages

requirements = []
with open("requirements.txt") as f:
    requirements = f.read().splitlines()


def read(fname):
    return open(os.path.join(os.path.dirname(__file__), fname)).read()


setup(
    name="gyro-plugin-aws",
    version="1.0.0",
    description="Gyro AWS EC2 Plugin",
    license="Apache 2.0",
    packages=find_packages(exclude=["test", "test.*"]),
    long_description=read("README.md"),
    long_description_content_type="text/markdown",
    entry_points={
        "console_scripts": [
            "gyro-aws-find = gyro_plugin_aws.cmd.find:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
    install_requires=requirements,
    tests_require=["pytest"],
    extras_require={"test": ["pytest"]},
    python_requires=">=3.8",
    classifiers=[
        # Current project status
        "Development Status :: 4 - Beta",
        # Audience
        "Intended Audience :: System Administrators",
        "Intended Audience :: Information Technology",
        # License information
        "License :: OSI Approved :: Apache Software License",
        # Supported python versions
        "Programming Language :: Python :: 3.8",
        # Supported OS's
        "Operating System :: POSIX :: Linux",
        "Operating System :: Unix",
        # Extra metadata
        "Environment :: Console",
        "Natural Language :: English",
        "Topic :: System :: Systems Administration",
        "Topic :: Utilities",
    ],
    keywords="cloud infrastructure-as-code aws ec2",
)
