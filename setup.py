from setuptools import find_packages, setup

setup(
    name="unbalancedot",
    distname="",
    version='0.1.0',
    description="Sinkhorn divergences and optimal couplings for unbalanced "
                "optimal transport using entropic regularization",
    author='Thibault Sejourne',
    author_email='thibault.sejourne@ens.fr',
    packages=['unbalancedot', 'unbalancedot.tests'],
    install_requires=[
              'numpy',
              'torch'
          ],
    extras_require={
        'test': ['pytest'],
    },
    license="MIT",
)
