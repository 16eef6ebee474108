from relgate.cli.app import main

main()
