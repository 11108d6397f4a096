"""
Setup script for ukf-tracking package.

This package provides an Unscented Kalman Filter for tracking a moving
object's position, speed, heading and turn rate from lidar and radar
measurements.
"""

from setuptools import setup, find_packages
import os

# Read long description from README
here = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(here, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

# Read requirements
with open(os.path.join(here, 'requirements.txt'), encoding='utf-8') as f:
    requirements = [line.strip() for line in f if line.strip() and not line.startswith('#')]

# Split core requirements from dev and visualization dependencies
core_requirements = []
dev_requirements = []
viz_requirements = []

for req in requirements:
    if any(dev_pkg in req for dev_pkg in ['pytest', 'black', 'flake8', 'mypy']):
        dev_requirements.append(req)
    elif any(viz_pkg in req for viz_pkg in ['matplotlib']):
        viz_requirements.append(req)
    else:
        core_requirements.append(req)

setup(
    name='ukf-tracking',
    version='1.0.0',
    description='CTRV Object Tracking with Unscented Kalman Filter Lidar/Radar Fusion',
    long_description=long_description,
    long_description_content_type='text/markdown',
    author='UKF Tracking Team',

    packages=find_packages(where='src'),
    package_dir={'': 'src'},

    # Core dependencies
    install_requires=core_requirements,

    # Optional dependencies
    extras_require={
        'viz': viz_requirements,
        'dev': dev_requirements,
        'all': viz_requirements + dev_requirements,
    },

    # Python version requirement
    python_requires='>=3.8',

    # Entry points for command line usage
    entry_points={
        'console_scripts': [
            'ukf-tracking=ukf_tracking.main:main',
        ],
    },

    # Classifiers for PyPI
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Science/Research',
        'Intended Audience :: Developers',
        'Topic :: Scientific/Engineering :: Mathematics',
        'Topic :: Software Development :: Libraries :: Python Modules',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Operating System :: OS Independent',
    ],

    # Keywords for searchability
    keywords='tracking kalman-filter unscented-kalman-filter sensor-fusion lidar radar ctrv',
)
