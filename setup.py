from setuptools import setup, find_packages
from setuptools.command.install import install
import subprocess
import sys

class PostInstallCommand(install):
    def run(self):
        install.run(self)
        try:
            subprocess.check_call([
                sys.executable,
                '-m', 'pyspice_post_installation',
                '--install-ngspice-dll'
            ])
            print("✅ ngspice DLL successfully installed.")
        except Exception as e:
            print("⚠️ Failed to install ngspice DLL automatically.")
            print("Please run manually: pyspice-post-installation --install-ngspice-dll")
            print("Error:", e)

setup(
    name='ctrl_simulator',
    version='0.1',
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=[
        'numpy',
        'scipy',
        'PySpice',
        'matplotlib',
        'tabulate',
        'pandas',
    ],
    extras_require={
        'test': ['pytest'],
    },
    description='Behavioural and SPICE models of switching-converter control blocks: '
                'gate driver, trailing-edge PWM, dead-time generator, peak current-mode modulator',
    author='GSEC',
    python_requires='>=3.8',
    cmdclass={
        'install': PostInstallCommand,
    }
)
