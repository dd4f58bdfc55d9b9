"""
Provides project-level commands. Commands are run via `python setup.py <command> [args]`

Commands available:

- ports: lists the serial ports on this machine, to help fill in a device's `port` option.
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


class PortsCommand(RunInRootCommand):
    description = "lists the serial ports on this machine"

    def runcmd(self):
        from serialdevice.conduit.serial_conduit import serial_port_info
        for info in serial_port_info():
            print("%s\t%s" % (info[0], info[1]))


setup(
    name='serial-device-py',
    version='0.1.0',
    description='Supervised request/response access to a single line-oriented serial device.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['serialdevice', 'serialdevice.conduit', 'serialdevice.config', 'serialdevice.support'],
    package_data={'serialdevice.config': ['*.cfg']},
    python_requires='>=3.6',
    install_requires=[
        'pyserial>=3.4',
        'configobj>=5.0.6',
    ],
    extras_require={
        'test': [
            'pytest',
            'PyHamcrest',
            'timeout-decorator',
        ],
    },
    zip_safe=False,
    cmdclass={
        'ports': PortsCommand,
    }
)
