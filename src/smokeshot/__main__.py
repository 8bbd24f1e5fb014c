from smokeshot.cli.app import main

main()
