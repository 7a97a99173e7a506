from shipline.cli.app import main

main()
