# Always prefer setuptools over distutils
from setuptools import setup, find_packages
# To use a consistent encoding
from codecs import open
from os import path

from otscert import __version__

here = path.abspath(path.dirname(__file__))

# Get the long description from the README file
with open(path.join(here, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='ots-certify',

    # Versions should comply with PEP440.
    version=__version__,

    description='Issue and verify OpenTimestamps anchored certificates of existence',
    long_description=long_description,
    long_description_content_type='text/markdown',

    author='The OTS Certify developers',

    license='LGPL3',

    # See https://pypi.python.org/pypi?%3Aaction=list_classifiers
    classifiers=[
        'Development Status :: 4 - Beta',

        'Intended Audience :: Developers',
        'Intended Audience :: End Users/Desktop',
        'Topic :: Security :: Cryptography',

        'License :: OSI Approved :: GNU Lesser General Public License v3 or later (LGPLv3+)',

        'Programming Language :: Python :: 3 :: Only',
    ],

    keywords='cryptography timestamping bitcoin certificates',

    packages=find_packages(exclude=['contrib', 'docs', 'tests']),

    python_requires='>=3.8',

    # List run-time dependencies here.  These will be installed by pip when
    # your project is installed.
    install_requires=['opentimestamps>=0.4.0,<0.5.0',
                      'python-bitcoinlib>=0.11.0',
                      'appdirs>=1.3.0',
                      'PySocks>=1.5.0',
                      'Flask>=2.0',
                      'requests>=2.20',
                      'supabase>=2.0',
                      'weasyprint>=52'],

    # $ pip install -e .[test]
    extras_require={
        'test': ['pytest'],
    },

    package_data={},

    data_files=[],

    entry_points={
        'console_scripts': [
            'ots-certify = otscert.certify:main',
        ],
    },
)
