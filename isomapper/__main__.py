from isomapper.cli import main

main()
