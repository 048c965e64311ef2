"""
Provides project-level commands. Commands are run via `python setup.py <command> [args]`

Commands available:

- apidoc: regenerate reST docs for inline pydoc comments
- autobuild: watch for changes to the reST files and rebuild the documentation, refreshing
   the browser.

Tests live beside the modules they test, in files named *_test.py. Run them with `pytest --doctest-modules src`
after installing the test extra.
"""

from setuptools import setup, Command

import os


class RunInRootCommand(Command):
    user_options = []

    def initialize_options(self):
        self.cwd = None

    def finalize_options(self):
        self.cwd = os.getcwd()

    def run(self):
        assert os.getcwd() == self.cwd, 'Must be in package root: %s' % self.cwd
        self.runcmd()

    def runcmd(self):
        pass


class ApiDocCommand(RunInRootCommand):
    description = "regenerates the API docs for the dcsbios package"

    def runcmd(self):
        os.system('"sphinx-apidoc" -f -e -o docs/apidoc src/dcsbios')


class AutoBuildCommand(RunInRootCommand):
    description = "watches the docs for changes and rebuilds them, automatically refreshing the browser page"

    def runcmd(self):
        os.system("sphinx-autobuild docs docs/_build/html -B")


setup(
    name='dcsbios-connector-py',
    version='0.0.1',
    description='Receives DCS-BIOS cockpit data and sends DCS-BIOS commands over UDP.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['dcsbios', 'dcsbios.conduit', 'dcsbios.config', 'dcsbios.protocol', 'dcsbios.support'],
    package_data={'dcsbios.config': ['dcsbios.*.cfg']},
    python_requires='>=3.7',
    install_requires=[
        'configobj>=5.0.8',
    ],
    extras_require={
        'test': [
            'pytest',
            'PyHamcrest>=2.0.3',
            'timeout-decorator',
        ],
    },
    zip_safe=False,
    cmdclass={
        'apidoc': ApiDocCommand,
        'autobuild': AutoBuildCommand
    }
)
