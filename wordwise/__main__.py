from wordwise.cli.main import main

main()
