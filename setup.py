from setuptools import setup, find_packages
import re

# Read version from taxprep/__init__.py
with open('taxprep/__init__.py') as f:
    version = re.search(r'^__version__ = ["\']([^"\']+)["\']', f.read(), re.MULTILINE).group(1)

setup(
    name='tax-prep',
    version=version,
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'taxprep.sdk.taxes': ['tax_rules/*.yaml'],
    },
    install_requires=[
        'PyYAML>=6.0',
        'click>=8.0',
        'pydantic>=2.0.0',
    ],
    extras_require={
        'mcp': [
            'mcp[cli]>=1.0.0,<2',
        ],
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'tax-prep=taxprep.cli.__main__:main',
            'tax-prep-mcp=taxprep.mcp.server:run_server',
        ],
    },
    author='Personal',
    description='Federal and state income tax computation, validation and amendment tools.',
    python_requires='>=3.10',
)
