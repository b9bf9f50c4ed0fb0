#!/usr/bin/env python3
"""
Example: Create a prepaid order.

This script calls the running service's prepay endpoint and prints the
parameters a mini-program passes to `wx.requestPayment`.

Usage:
    python create_order.py OPENID 100 https://your-site.com/api/wechatpay/notify

    # With description and attach payload
    python create_order.py OPENID 100 https://your-site.com/api/wechatpay/notify \\
        --description "Coffee" --attach '{"type": "business1", "data1": {}}'
"""

import argparse
import asyncio
import json
import sys
import aiohttp


async def create_order(
    api_url: str,
    openid: str,
    money: int,
    notify_url: str,
    description: str,
    attach: dict
) -> tuple:
    """Create a prepaid order through the service API."""
    payload = {
        "description": description,
        "notify_url": notify_url,
        "money": money,
        "openid": openid,
        "attach": attach
    }

    async with aiohttp.ClientSession() as session:
        async with session.post(
            f"{api_url}/api/wechatpay/prepay",
            json=payload
        ) as response:
            return response.status, await response.json()


async def main():
    parser = argparse.ArgumentParser(
        description='Create a WeChat Pay prepaid order'
    )
    parser.add_argument(
        'openid',
        help="Payer's openid in the mini-program"
    )
    parser.add_argument(
        'money',
        type=int,
        help='Amount in cents (fen)'
    )
    parser.add_argument(
        'notify_url',
        help='HTTPS URL that receives the payment notification'
    )
    parser.add_argument(
        '--description',
        default='order',
        help='Order description (default: order)'
    )
    parser.add_argument(
        '--attach',
        default='{}',
        help='JSON business payload returned in the notification'
    )
    parser.add_argument(
        '--api-url',
        default='http://localhost:8000',
        help='API server URL (default: http://localhost:8000)'
    )

    args = parser.parse_args()

    try:
        attach = json.loads(args.attach)
    except ValueError as e:
        print(f"❌ --attach is not valid JSON: {e}")
        sys.exit(2)

    print("Creating prepaid order...")
    print(f"  OpenID: {args.openid}")
    print(f"  Amount: {args.money} fen")
    print(f"  Notify URL: {args.notify_url}")
    print()

    try:
        status, result = await create_order(
            api_url=args.api_url,
            openid=args.openid,
            money=args.money,
            notify_url=args.notify_url,
            description=args.description,
            attach=attach
        )
    except aiohttp.ClientError as e:
        print(f"\n❌ Connection error: {e}")
        print("   Make sure the API server is running.")
        sys.exit(1)

    print("Response:")
    print(json.dumps(result, indent=2, ensure_ascii=False))

    if status == 200:
        print(f"\n✅ Order {result['out_trade_no']} created!")
    else:
        print(f"\n❌ Order creation failed: {result.get('error')}")
        sys.exit(1)


if __name__ == '__main__':
    asyncio.run(main())
