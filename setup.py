import setuptools


setuptools.setup(
    name='panda3d-ltcfit',
    version='0.1.0',
    description='Fit Linearly Transformed Cosine lookup tables for Panda3D area lights',
    packages=['ltcfit'],
    python_requires='>=3.9',
    install_requires=[
        'panda3d',
        'typing_extensions',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'ltcfit=ltcfit.fitltc:main',
        ],
    },
)
