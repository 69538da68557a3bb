from manualgrab.cli import main

main()
