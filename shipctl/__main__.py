from shipctl.cli.app import main

main()
