"""
Setup script for synthetix_scripts.
"""
import pathlib

from setuptools import find_packages, setup


def read_requirements(filename):
    with pathlib.Path(filename).open() as requirements_txt:
        return [
            line.split("#", 1)[0].strip()
            for line in requirements_txt
            if line.split("#", 1)[0].strip()
        ]


install_requires = read_requirements("requirements.txt")
test_requires = read_requirements("dev-requirements.txt")

setup(
    name="synthetix_scripts",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={
        "": "src",
    },
    include_package_data=True,
    zip_safe=False,
    install_requires=install_requires,
    extras_require={"test": test_requires},
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "calculate-l2-trial-scores=synthetix_scripts.commands.calculate_l2_trial_scores:main",
            "distribute-l2-trial-snx=synthetix_scripts.commands.distribute_l2_trial_snx:main",
            "get-all-l2-active-snx-holders=synthetix_scripts.commands.get_all_l2_active_snx_holders:main",
            "get-all-l2-issuer-balances=synthetix_scripts.commands.get_all_l2_issuer_balances:main",
            "get-debts=synthetix_scripts.commands.get_debts:main",
            "l2-snx-airdrop=synthetix_scripts.commands.l2_snx_airdrop:main",
            "l2-weth-airdrop=synthetix_scripts.commands.l2_weth_airdrop:main",
            "compare-airdrops=synthetix_scripts.commands.compare_airdrops:main",
            "get-l2-revert-reason=synthetix_scripts.commands.get_l2_revert_reason:main",
            "reward-escrow-migration=synthetix_scripts.commands.reward_escrow_migration:main",
            "status=synthetix_scripts.commands.status:main",
            "synth-status=synthetix_scripts.commands.synth_status:main",
            "sum-amounts=synthetix_scripts.commands.sum_amounts:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
