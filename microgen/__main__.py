from microgen.cli import main

main()
