from storebench.main import main

main()
