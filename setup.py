# SPDX-License-Identifier: GPL-3.0-or-later

from setuptools import find_packages, setup
import os
from glob import glob

package_name = 'image_equalization'

setup(
    name=package_name,
    version='0.1.0',
    packages=find_packages(exclude=['test']),
    data_files=[
        ('share/ament_index/resource_index/packages',
            ['resource/' + package_name]),
        ('share/' + package_name, ['package.xml']),
        (os.path.join('share', package_name, 'launch'), glob('launch/*.launch.py')),
        (os.path.join('share', package_name, 'config'), glob('config/*.yaml')),
    ],
    install_requires=['setuptools', 'numpy', 'opencv-python'],
    zip_safe=True,
    maintainer='McGill Robotics',
    maintainer_email='dev@mcgillrobotics.com',
    description='Histogram equalization (global or CLAHE) of camera image streams (ROS 2, Python).',
    license='GPL-3.0-or-later',
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'equalize_histogram = image_equalization.equalize_histogram:main',
            'fake_camera = image_equalization.fake_camera_node:main',
        ],
    },
)
