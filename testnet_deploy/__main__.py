"""Run the testnet-deploy command line tool with `python -m testnet_deploy`."""

from testnet_deploy.tool.testnet_deploy import main

if __name__ == "__main__":
    main()
