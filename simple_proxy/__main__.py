from simple_proxy.cli import main

main()
