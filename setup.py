from setuptools import setup

with open('README.md') as fh:
    long_description = fh.read()

setup(
    name='DRScore',
    version='v0.1',
    author='DRScore developers',

    description='Drug resistance scoring for HIV-1 mutations, using HIVDB-style rule tables',
    long_description=long_description,
    long_description_content_type="text/markdown",

    packages=['drscore',
              'drscore.core',
              'drscore.alignment',
              'drscore.resistance',
              'drscore.utils'],
    package_data={'drscore': ['data/*.yaml']},
    python_requires='>=3.8',
    install_requires=['pyyaml', 'biopython'],
    extras_require={'test': ['pytest']},
    entry_points={
        'console_scripts': [
            'drscore-resistance = drscore.resistance.resistance:entry',
        ],
    },
)
